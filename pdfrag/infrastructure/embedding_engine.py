# pdfrag/infrastructure/embedding_engine.py
# model_name and dimension stay concrete properties, NOT part of the abstract port

import numpy as np
from typing import List
from sentence_transformers import SentenceTransformer

from pdfrag.config import EMBEDDING_MODEL_NAME
from pdfrag.domain.interfaces import EmbeddingPort


class SentenceTransformerEngine(EmbeddingPort):

    def __init__(self, model_name: str = EMBEDDING_MODEL_NAME):
        print(f"[EmbeddingEngine] Loading model: {model_name} ...")
        self._model_name = model_name
        self._model = SentenceTransformer(model_name)
        print(f"[EmbeddingEngine] Model ready ({self.dimension} dimensions).")

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        """Used by the composition roots to size the record store."""
        return int(self._model.get_sentence_embedding_dimension())

    def encode(self, texts: List[str]) -> np.ndarray:
        return self._model.encode(
            [text.replace("\n", " ") for text in texts],
            convert_to_numpy=True,
            show_progress_bar=len(texts) > 32,
            batch_size=32,
            normalize_embeddings=True,
        )

    def encode_single(self, text: str) -> np.ndarray:
        return self._model.encode(
            text.replace("\n", " "),
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
