"""Custom exceptions for Billsmith"""


class BillsmithError(Exception):
    """Base exception for all Billsmith errors"""
    pass


class PipelineError(BillsmithError):
    """Error in pipeline execution"""
    def __init__(self, message: str, stage: int = None):
        super().__init__(message)
        self.stage = stage


class StageError(BillsmithError):
    """Error in a specific stage"""
    def __init__(self, stage: int, message: str):
        super().__init__(f"Stage {stage}: {message}")
        self.stage = stage
        self.message = message


class FormulaSyntaxError(BillsmithError):
    """Sanitized formula text is not a valid arithmetic expression"""
    def __init__(self, message: str, expression: str = None, position: int = None):
        super().__init__(message)
        self.expression = expression
        self.position = position


class TemplateFileError(BillsmithError):
    """Template or invoice file could not be read"""
    def __init__(self, message: str, file_path: str = None):
        super().__init__(message)
        self.file_path = file_path
