"""Embedding providers for semantic memory search.

Two providers are available, selected by EMBEDDING_PROVIDER:

local (default): BAAI/bge-small-en-v1.5 via sentence-transformers
    - 384 dimensions
    - Fast inference on CPU
    - Good quality for retrieval tasks

ollama: any embedding model served by Ollama (POST /api/embeddings)
    - Dimension depends on the model (set EMBEDDING_DIM to match)
    - Optional L2 normalisation

Every provider returns float32 vectors whose length equals the configured
dimension; anything else is an EmbeddingError.

Usage:
    >>> from embeddings import create_embedding_provider
    >>> provider = create_embedding_provider(config)
    >>> vector = await provider.embed("Morgan refuses to open the study")
"""

import asyncio
import logging
from typing import Protocol

import aiohttp
import numpy as np

logger = logging.getLogger(__name__)

# Model configuration
MODEL_NAME = "BAAI/bge-small-en-v1.5"
EMBEDDING_DIM = 384


class EmbeddingError(Exception):
    """Raised when an embedding cannot be produced."""


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-size vector."""

    dim: int

    async def embed(self, text: str) -> np.ndarray: ...


def _check_dim(vector: np.ndarray, dim: int, source: str) -> np.ndarray:
    if vector.ndim != 1 or vector.shape[0] != dim:
        raise EmbeddingError(
            f"{source} returned a vector of shape {vector.shape}, expected ({dim},)"
        )
    return vector


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """Scale to unit length; near-zero vectors are returned unchanged."""
    norm = float(np.linalg.norm(vector))
    if norm < 1e-6:
        return vector
    return (vector / norm).astype(np.float32)


class EmbeddingModel:
    """Wrapper for sentence-transformers embedding model.

    Provides lazy loading and caching of the model instance.
    The model is loaded on first use and reused for subsequent calls.

    Attributes:
        model_name: HuggingFace model identifier
        dim: Embedding dimension size
    """

    def __init__(self, model_name: str = MODEL_NAME, dim: int = EMBEDDING_DIM):
        self.model_name = model_name
        self.dim = dim
        self._model = None

    def _load_model(self):
        """Lazily load the sentence-transformers model."""
        if self._model is None:
            logger.info("Loading embedding model: %s", self.model_name)
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
            logger.info("Embedding model loaded | dim=%d", self.dim)
        return self._model

    def encode(self, text: str) -> np.ndarray:
        """Encode a single text string to a normalized float32 vector.

        Raises:
            EmbeddingError: If the model output does not match `dim`
        """
        model = self._load_model()
        embedding = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return _check_dim(embedding.astype(np.float32), self.dim, self.model_name)

    async def embed(self, text: str) -> np.ndarray:
        # Model inference is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(self.encode, text)


class OllamaEmbeddingModel:
    """Embeddings served by an Ollama instance.

    Sends one request per text: POST {endpoint}/api/embeddings with
    {"model": ..., "prompt": ...} and reads {"embedding": [...]} back.
    """

    def __init__(
        self,
        model_name: str,
        dim: int,
        endpoint: str = "http://localhost:11434",
        normalize: bool = True,
        timeout: float = 60.0,
    ):
        self.model_name = model_name
        self.dim = dim
        self.endpoint = endpoint.rstrip("/")
        self.normalize = normalize
        self.timeout = timeout

    async def embed(self, text: str) -> np.ndarray:
        """Embed text through the Ollama HTTP API.

        Raises:
            EmbeddingError: On HTTP errors, empty responses, or a wrong dimension
        """
        url = f"{self.endpoint}/api/embeddings"
        payload = {"model": self.model_name, "prompt": text}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise EmbeddingError(f"Ollama embeddings error: HTTP {resp.status}")
                    data = await resp.json()
        except aiohttp.ClientError as e:
            raise EmbeddingError(f"Ollama request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Ollama request timed out after {self.timeout}s") from e

        values = data.get("embedding") if isinstance(data, dict) else None
        if not values:
            raise EmbeddingError("Failed to get valid embeddings from Ollama")

        vector = np.asarray(values, dtype=np.float32)
        if self.normalize:
            vector = l2_normalize(vector)
        logger.debug("Ollama embedding | model=%s dim=%d", self.model_name, vector.shape[0])
        return _check_dim(vector, self.dim, f"Ollama model {self.model_name}")


def create_embedding_provider(config) -> EmbeddingProvider:
    """Build the embedding provider selected by the configuration."""
    if config.embedding_provider == "ollama":
        logger.info(
            "Embedding provider: ollama | model=%s url=%s", config.embedding_model, config.ollama_url
        )
        return OllamaEmbeddingModel(
            model_name=config.embedding_model,
            dim=config.embedding_dim,
            endpoint=config.ollama_url,
            normalize=config.embedding_normalize,
            timeout=config.llm_timeout,
        )
    logger.info("Embedding provider: local | model=%s", config.embedding_model)
    return EmbeddingModel(config.embedding_model, config.embedding_dim)
