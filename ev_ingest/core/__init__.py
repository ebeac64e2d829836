"""
Core models, validation rules, configuration and errors.
"""
