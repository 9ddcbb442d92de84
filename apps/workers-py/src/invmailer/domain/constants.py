"""Fixed markers, labels and defaults for Apple invoice mails."""

DEFAULT_FILTER_SUBJECT = "Deine Rechnung von Apple"
DEFAULT_FILTER_FROM = "apple.com"
DEFAULT_OUT_SUBJECT = "Deine PDF-Rechnungen von Apple"
DEFAULT_OUT_BODY = "Dokumente anbei.\n"

RECENCY_CURRENT_MONTH = "current_month"
RECENCY_UNBOUNDED = "unbounded"
RECENCY_CHOICES = (RECENCY_CURRENT_MONTH, RECENCY_UNBOUNDED)

# Text labels looked up in the invoice body.
ORDER_NUMBER_LABEL = "Bestellnummer:"
TAX_ID_LABEL = "UID-Nr"

# Vendor chrome, keyed by markup markers.
CTA_SELECTOR = ".action-button-cell"
CTA_INTRO_SELECTOR = "#footer_section > p"
HELP_BLOCK_SELECTOR = "#footer_section > .custom-1sstyyn"
LINK_BAR_SELECTOR = ".inline-link-group"
FOOTER_COPY_SELECTOR = ".footer-copy p"
FOOTER_EMPHASIS_STYLE = "font-weight:600"

REMOTE_SRC_PREFIX = "http"
DEFAULT_IMAGE_TYPE = "image/png"
DEFAULT_IMAGE_TIMEOUT = 15.0

# Attachment naming.
ORDER_NAME_TOKEN = "_Rechnung_Apple_"
DEFAULT_NAME = "invoice"
ARTIFACT_EXT = ".pdf"

DEFAULT_BROWSER_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36"
)
