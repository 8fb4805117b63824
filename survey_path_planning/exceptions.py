class SurveyPlanningError(Exception):
    """Base exception for survey flight plan generation errors."""
    pass

class InvalidParameterError(SurveyPlanningError, ValueError):
    """Raised when mission or drone parameters are out of their valid range."""
    pass

class InvalidPolygonError(SurveyPlanningError, ValueError):
    """Raised when the area of interest cannot be used as a survey polygon."""
    pass
