"""Application constants."""

USER_AGENT = "geolite-import/1.0 (+geoip loader)"
DEFAULT_ARCHIVE_NAME = "GeoLite2-City-CSV.zip"
BLOCK_FILE_NAME = "GeoLite2-City-Blocks-IPv4.csv"
LOCATION_FILE_TEMPLATE = "GeoLite2-City-Locations-{locale}.csv"
LOCATION_LOCALES = ("de", "en", "es", "fr", "ja", "pt-BR", "ru", "zh-CN")
DEFAULT_LOCALE = "en"
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "table",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "batch",
    "error_code",
    "message",
)
