"""Constants for Gmail Sender Trust."""

import os
from pathlib import Path

VERSION = "0.1.0"

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-sender-trust"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
CACHE_DB_PATH = CONFIG_DIR / "cache.db"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
GMAIL_RETRY_ATTEMPTS = 5

# --- Brand resolution ---
DOH_URL = "https://dns.google/resolve"
FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=32"
# Fetched directly (no redirect) for the generic-icon byte comparison
FAVICON_PROBE_URL = (
    "https://t0.gstatic.com/faviconV2?client=SOCIAL&type=FAVICON"
    "&fallback_opts=TYPE,SIZE,URL&url=http://{domain}&size=32"
)
GENERIC_FAVICON_REFERENCE_DOMAIN = "xyznotarealdomain12345.invalid"
BRAND_HTTP_TIMEOUT = 5.0  # seconds per DoH / favicon request

# Multi-part TLDs for correct root domain extraction
MULTI_PART_TLDS = frozenset(
    [
        "co.uk", "org.uk", "ac.uk", "gov.uk", "me.uk", "net.uk",
        "com.au", "net.au", "org.au", "edu.au", "gov.au",
        "co.nz", "net.nz", "org.nz",
        "co.in", "net.in", "org.in", "gen.in", "firm.in", "ind.in",
        "co.za", "org.za", "web.za",
        "co.jp", "or.jp", "ne.jp", "ac.jp",
        "com.br", "net.br", "org.br",
        "com.mx", "org.mx", "net.mx",
        "com.cn", "net.cn", "org.cn",
        "co.kr", "or.kr", "ne.kr",
        "com.sg", "org.sg", "net.sg",
        "com.hk", "org.hk", "net.hk",
        "co.il", "org.il", "net.il",
        "com.tw", "org.tw", "net.tw",
        "com.ar", "org.ar", "net.ar",
        "co.th", "or.th", "in.th",
        "com.tr", "org.tr", "net.tr",
    ]
)

# --- Caching ---
SENDER_CACHE_TTL_MS = 24 * 60 * 60 * 1000  # 24 hours
AI_CACHE_SUBJECT_PREFIX = 80

# --- Header verification ---
HEADER_FETCH_TIMEOUT = 10.0  # seconds
HEADER_BLOCK_FALLBACK_CHARS = 8000
SPF_RESULTS = ("pass", "fail", "softfail", "neutral", "none", "temperror", "permerror")
DKIM_RESULTS = ("pass", "fail", "neutral", "none", "temperror", "permerror")
DMARC_RESULTS = ("pass", "fail", "bestguesspass", "none", "temperror", "permerror")
RAW_HEADER_NAMES = [
    "Authentication-Results",
    "ARC-Authentication-Results",
    "Received-SPF",
    "DKIM-Signature",
    "X-Original-Sender",
    "List-Id",
    "List-Unsubscribe",
    "Precedence",
]

# --- AI analysis ---
AI_ANALYSIS_TIMEOUT = 30.0  # seconds
AI_MAX_ATTEMPTS = 2  # first try + one retry on a fresh session
PROMPT_DISPLAY_NAME_LIMIT = 200
PROMPT_SENDER_LIMIT = 320
PROMPT_SUBJECT_LIMIT = 500
PROMPT_BODY_LIMIT = 2000
PROMPT_LINK_TEXT_LIMIT = 100
PROMPT_LINK_HREF_LIMIT = 500
PROMPT_MAX_LINKS = 20
PARSE_ERROR_SNIPPET = 200

# --- Local language model (Ollama) ---
OLLAMA_URL = os.environ.get("SENDER_TRUST_OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.environ.get("SENDER_TRUST_OLLAMA_MODEL", "llama3.2")
OLLAMA_HTTP_TIMEOUT = 60.0
