# villa_sync/constants.py
# Poll cadences and wire constants shared by the sync client

DEFAULT_POLL_INTERVAL_MS: int = 5000

# Rapidly changing shapes (field-level onboarding progress while a form is open)
FAST_POLL_INTERVAL_MS: int = 2000
# Session-level onboarding state
REALTIME_POLL_INTERVAL_MS: int = 3000

DEFAULT_HEALTH_CHECK_INTERVAL_MS: int = 30000
DEFAULT_HEALTH_CHECK_TIMEOUT_MS: int = 3000

# Shape API
SHAPE_PATH: str = "/v1/shape"
HEALTH_PATH: str = "/v1/health"
SHAPE_INITIAL_OFFSET: str = "-1"
HEALTHY_STATUS: str = "active"

# Tables served by the sync service
VILLA_TABLE: str = "Villa"
PHOTO_TABLE: str = "Photo"
DOCUMENT_TABLE: str = "Document"
ONBOARDING_SESSION_TABLE: str = "OnboardingSession"
STEP_FIELD_PROGRESS_TABLE: str = "StepFieldProgress"
STEP_PROGRESS_TABLE: str = "OnboardingStepProgress"
