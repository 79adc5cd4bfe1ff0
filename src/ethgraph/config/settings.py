from decimal import Decimal
import os
from dotenv import load_dotenv
load_dotenv()
# ---- Etherscan ----
ETHERSCAN_API_KEY = os.environ.get("ETHERSCAN_API_KEY")
ETHERSCAN_API_KEY_FILE = os.environ.get("ETHERSCAN_API_KEY_FILE", "api_key.txt")
ETHERSCAN_CHAIN_ID = 1          # Ethereum mainnet
ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"

ETHERSCAN_REQUESTS_PER_SEC = 2.0
ETHERSCAN_TIMEOUT_SEC = 15
ETHERSCAN_START_BLOCK = 0
ETHERSCAN_END_BLOCK = 99999999

# ---- Crawl ----
TRAVERSAL_STARTING_ADDRESS = os.environ.get(
    "TRAVERSAL_STARTING_ADDRESS", "0x60D170c2b604a4B613b43805aE4657476DCA9E38"
)
MAX_TOTAL_TRANSACTIONS = int(os.environ.get("MAX_TOTAL_TRANSACTIONS", "100"))
MAX_TRANSACTIONS_FROM_EACH_ADDRESS = int(os.environ.get("MAX_TRANSACTIONS_FROM_EACH_ADDRESS", "20"))
# Depth of 1 searches only the seed; 0 behaves like 1.
MAX_GRAPH_TRAVERSAL_DEPTH = int(os.environ.get("MAX_GRAPH_TRAVERSAL_DEPTH", "4"))
CRAWL_STRATEGY = os.environ.get("CRAWL_STRATEGY", "relevance")

# 0 = retry forever
FETCH_MAX_RETRIES = int(os.environ.get("FETCH_MAX_RETRIES", "5"))
FETCH_BACKOFF_BASE_SEC = 0.5
FETCH_BACKOFF_CAP_SEC = 8.0

# ---- Storage / reports ----
DATA_STORAGE_FOLDER = os.environ.get("DATA_STORAGE_FOLDER", "data")
REPORT_OUTPUT_FOLDER = os.environ.get("REPORT_OUTPUT_FOLDER", "out")
PRICE_FILE = os.environ.get("PRICE_FILE")  # report is skipped when unset

# ----- Pricing ------
PRICE_BUCKET_SEC = 3600
WEI_PER_ETH = Decimal("1000000000000000000")

# USD range used for the price-filtered report sections
USD_FILTER_LOWER = Decimal(os.environ.get("USD_FILTER_LOWER", "10"))
USD_FILTER_UPPER = Decimal(os.environ.get("USD_FILTER_UPPER", "1000"))

# ----- Logging -----
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
