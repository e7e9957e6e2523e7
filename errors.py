# errors.py


class ProcedoError(Exception):
    """Base class for pipeline errors."""


class ExtractionError(ProcedoError):
    """Text could not be extracted from the submitted document. Fatal for the case."""


class CompletionError(ProcedoError):
    """The language-model call failed or returned nothing usable."""


class CaseNotFound(ProcedoError):
    def __init__(self, case_id: str):
        super().__init__(f"Case {case_id} not found")
        self.case_id = case_id


class CaseAlreadyProcessing(ProcedoError):
    def __init__(self, case_id: str):
        super().__init__(f"Case {case_id} is already being analyzed")
        self.case_id = case_id
