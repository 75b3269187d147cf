"""
Parameter validation: the pipeline and the field validators.

    from netalloc.validation import Derived, ValidationSchema, validate_params
"""

from netalloc.validation.pipeline import OMIT, Derived, ValidationSchema, validate_params

__all__ = ["OMIT", "Derived", "ValidationSchema", "validate_params"]
