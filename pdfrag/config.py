# pdfrag/config.py
#
# Every value can be overridden with a PDFRAG_<NAME> environment variable,
# either exported or listed in a local `.env` file.

import os

from dotenv import load_dotenv


load_dotenv()


def _env_str(name: str, default: str) -> str:
    return os.getenv(f"PDFRAG_{name}", default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(f"PDFRAG_{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"PDFRAG_{name} must be an integer, got '{raw}'.") from error


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(f"PDFRAG_{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"PDFRAG_{name} must be a number, got '{raw}'.") from error


# ── Storage ───────────────────────────────────────────────────────────────────
DATA_DIRECTORY        = _env_str("DATA_DIRECTORY", "data")
PERSIST_DIRECTORY     = _env_str("PERSIST_DIRECTORY", "./data/chroma_db")

# ── Embeddings ────────────────────────────────────────────────────────────────
EMBEDDING_MODEL_NAME  = _env_str("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
EMBEDDING_DIMENSION   = _env_int("EMBEDDING_DIMENSION", 768)

# ── Retrieval ─────────────────────────────────────────────────────────────────
DEFAULT_TOP_K             = _env_int("TOP_K", 5)
SIMILARITY_THRESHOLD      = _env_float("SIMILARITY_THRESHOLD", 0.1)
MIN_FINAL_SCORE           = _env_float("MIN_FINAL_SCORE", 0.01)

# Fusion weights. Only the clamp of the fused score to [0, 1] is a hard rule;
# these are tuning knobs.
KEYWORD_WEIGHT            = _env_float("KEYWORD_WEIGHT", 0.6)
SEMANTIC_WEIGHT           = _env_float("SEMANTIC_WEIGHT", 0.4)
CONFIDENT_MATCH_THRESHOLD = _env_float("CONFIDENT_MATCH_THRESHOLD", 0.8)

# Each signal fetches top_k * CANDIDATE_MULTIPLIER before fusion.
CANDIDATE_MULTIPLIER      = _env_int("CANDIDATE_MULTIPLIER", 5)

# ── Keyword scoring ───────────────────────────────────────────────────────────
BM25_K1                   = _env_float("BM25_K1", 1.2)
BM25_B                    = _env_float("BM25_B", 0.75)
FUZZY_THRESHOLD           = _env_float("FUZZY_THRESHOLD", 0.7)

# ── Ingestion ─────────────────────────────────────────────────────────────────
MAX_CHUNK_CHARS           = _env_int("MAX_CHUNK_CHARS", 4000)
