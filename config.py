"""Configuration and environment settings"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration"""

    # Page geometry (millimetres)
    PAGE_WIDTH_MM: float = 210.0  # A4
    PAGE_HEIGHT_MM: float = 297.0
    HORIZONTAL_PADDING_MM: float = 26.0  # left + right page padding

    # Preview scaling
    PREVIEW_PADDING_PX: float = 60.0
    PREVIEW_MIN_SCALE: float = 0.4
    PREVIEW_MAX_SCALE_OPEN: float = 1.0  # edit panel open
    PREVIEW_MAX_SCALE_CLOSED: float = 1.1
    ZOOM_MIN: float = 0.25
    ZOOM_MAX: float = 2.0

    # Formula evaluation
    RENDER_MAX_PASSES: int = 5
    INTERACTIVE_PASSES: int = 2
    RESULT_DECIMALS: int = 2
    CIRCULAR_FORMULA_FALLBACK: str = "blank"  # blank | last_pass

    # Styling defaults
    DEFAULT_ACCENT_COLOR: str = "#2563eb"
    UNFILLED_ACCENT_COLOR: str = "#000000"
    FILLED_HEADER_TEXT_COLOR: str = "#ffffff"
    DEFAULT_FONT_FAMILY: str = "Inter"
    DEFAULT_BODY_FONT_SIZE: int = 14
    DEFAULT_HEADER_FONT_SIZE: int = 60
    DEFAULT_HEADER_OPACITY: float = 0.1
    DEFAULT_HEADER_PADDING: int = 12
    DEFAULT_ROW_PADDING: int = 16
    DEFAULT_BORDER_WIDTH: float = 1.0

    # Totals
    GRAND_TOTAL_KEY: str = "grand_total"
    GRAND_TOTAL_COLUMN: str = "total"
    QUANTITY_COLUMN: str = "quantity"
    CURRENCY_SYMBOL: str = "₹"
    WORDS_LANG: str = "en_IN"
    EMPTY_VALUE: str = "--"
    DATE_DISPLAY_FORMAT: str = "%d %b %Y"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def content_width_mm(self) -> float:
        """Printable width of a standard page"""
        return self.PAGE_WIDTH_MM - self.HORIZONTAL_PADDING_MM


settings = Settings()
