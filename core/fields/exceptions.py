class CoreFieldProtectedError(ValueError):
    """Raised when a core field definition is edited or deleted"""


class DuplicateFieldNameError(ValueError):
    """Raised when a field name is already registered"""
