import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

# --------------------------------------------------
# Data Locations
# --------------------------------------------------
# Raw governance records (proposals.json, validators.json, votes/<chain>_votes.csv)
GOVERNANCE_DATA_DIR = os.environ.get("GOVERNANCE_DATA_DIR") or "./data"

# Where the precomputation step writes one distribution file per chain
PRECOMPUTED_OUTPUT_DIR = (
    os.environ.get("PRECOMPUTED_OUTPUT_DIR")
    or os.path.join(GOVERNANCE_DATA_DIR, "precomputed", "category_distributions")
)

# --------------------------------------------------
# Chain Configuration
# --------------------------------------------------
DEFAULT_CHAIN = os.environ.get("DEFAULT_CHAIN", "cosmos")

_DEFAULT_CHAINS = (
    "akash,axelar,cosmos,dydx,evmos,finschia,gravity-bridge,injective,iris,"
    "juno,kava,kyve,osmosis,secret,sentinel,stargaze,terra"
)
SUPPORTED_CHAINS = [
    chain.strip()
    for chain in os.environ.get("SUPPORTED_CHAINS", _DEFAULT_CHAINS).split(",")
    if chain.strip()
]

# --------------------------------------------------
# Analysis Cache Configuration
# --------------------------------------------------
ANALYSIS_CACHE_TTL_MINUTES = int(os.environ.get("ANALYSIS_CACHE_TTL_MINUTES", "30"))
ANALYSIS_CACHE_MAX_ENTRIES = int(os.environ.get("ANALYSIS_CACHE_MAX_ENTRIES", "256"))

# --------------------------------------------------
# Server Configuration
# --------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = os.environ.get("ALLOWED_ORIGINS", "*")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
