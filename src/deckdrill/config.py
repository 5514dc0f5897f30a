"""Runtime settings: scoring constants, practice-test timing, import limits and logging."""

class Settings:
    PROJECT_NAME: str = "deckdrill"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Scoring
    ATTEMPT_WINDOW: int = 3
    UNATTEMPTED_CREDIT: float = 0.1
    DECAY_PER_DAY: float = 0.01
    MAX_DECAY: float = 0.30

    # Practice tests
    SECONDS_PER_QUESTION: int = 60
    DEFAULT_PRACTICE_SIZE: int = 10

    # Import limits
    MAX_QUESTIONS_PER_DECK: int = 1000
    MAX_SUBDECKS: int = 100
    MIN_OPTIONS_PER_QUESTION: int = 2
    MAX_OPTIONS_PER_QUESTION: int = 10
    MAX_TITLE_LENGTH: int = 200
    MAX_DESCRIPTION_LENGTH: int = 2000
    MAX_QUESTION_TEXT_LENGTH: int = 2000
    MAX_OPTION_TEXT_LENGTH: int = 500


settings = Settings()
