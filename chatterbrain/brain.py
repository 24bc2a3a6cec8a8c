#!/usr/bin/env python3
"""
Brain Persistence
=================
Keeps a MarkovChain on disk between runs.

A brain file holds the serialized chain. When it does not exist yet the
store trains a fresh chain from a raw corpus (the trainer file) instead.

Usage:
    from chatterbrain.brain import BrainStore

    store = BrainStore()
    store.load()                   # brain file, or trainer corpus fallback
    store.learn("some new line of text")
    print(store.chain.get_reply("text"))
    store.save_if_dirty()
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from chatterbrain.markov_chain import BrainFormatError, MarkovChain
from chatterbrain.settings import get_setting, resolve_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class BrainConfig:
    """File locations for a brain."""
    brain_file: Optional[Path] = None     # Serialized chain state
    trainer_file: Optional[Path] = None   # Raw corpus used when no brain exists

    def __post_init__(self):
        cfg = get_setting("brain", {}) or {}
        if self.brain_file is None and cfg.get("brain_file"):
            self.brain_file = resolve_path(cfg["brain_file"])
        if self.trainer_file is None and cfg.get("trainer_file"):
            self.trainer_file = resolve_path(cfg["trainer_file"])

        missing = [
            name for name, value in (
                ("brain_file", self.brain_file),
                ("trainer_file", self.trainer_file),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"brain settings missing in app.yaml: {', '.join(missing)}")

        self.brain_file = Path(self.brain_file)
        self.trainer_file = Path(self.trainer_file)


# =============================================================================
# Store
# =============================================================================

class BrainStore:
    """Loads, trains and saves one MarkovChain."""

    def __init__(self,
                 chain: MarkovChain = None,
                 brain_file: PathLike = None,
                 trainer_file: PathLike = None):
        self.chain = chain if chain is not None else MarkovChain.from_settings()
        self.config = BrainConfig(
            brain_file=Path(brain_file) if brain_file else None,
            trainer_file=Path(trainer_file) if trainer_file else None,
        )
        self.dirty = False

    @property
    def brain_file(self) -> Path:
        return self.config.brain_file

    @property
    def trainer_file(self) -> Path:
        return self.config.trainer_file

    def learn(self, text: str) -> list[str]:
        """Learn text and remember that the brain needs saving."""
        links = self.chain.learn(text)
        if isinstance(text, str) and text:
            self.dirty = True
        return links

    def load_trainer(self, path: PathLike = None) -> int:
        """
        Train the chain from a raw corpus file.

        Returns:
            Number of new successor links (0 if the file is missing)
        """
        path = Path(path) if path else self.trainer_file
        logger.info(f"Loading trainer {path}")
        if not path.exists():
            logger.warning(f"Trainer file {path} not found. Brain is empty.")
            return 0

        links = self.learn(path.read_text(encoding='utf-8'))
        logger.info(f"Trainer {path} learned: {len(links)} new links")
        return len(links)

    def load(self, path: PathLike = None) -> None:
        """
        Restore the chain from a brain file, or train it if there is none.

        Raises:
            BrainFormatError: If the brain file exists but is corrupt
        """
        path = Path(path) if path else self.brain_file
        logger.info(f"Loading brain file {path}")
        if not path.exists():
            logger.info(f"Brain file {path} not found. Attempting to load trainer.")
            self.load_trainer()
            return

        try:
            self.chain.deserialize(path.read_text(encoding='utf-8'))
        except BrainFormatError as e:
            logger.error(f"Error loading brain file {path}: {e}")
            raise
        self.dirty = False
        logger.info(f"Brain file {path} loaded successfully")

    def save(self, path: PathLike = None) -> Path:
        """Write the chain to disk atomically."""
        path = Path(path) if path else self.brain_file
        logger.info(f"Saving brain {path}")
        save_chain(self.chain, path)
        self.dirty = False
        logger.info(f"Brain file {path} saved successfully")
        return path

    def save_if_dirty(self) -> bool:
        if not self.dirty:
            return False
        self.save()
        return True


# =============================================================================
# PERSISTENCE HELPERS
# =============================================================================

def save_chain(chain: MarkovChain, filepath: PathLike) -> None:
    """Serialize a chain to a file, replacing it only once fully written."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(chain.serialize())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_chain(filepath: PathLike, **kwargs) -> MarkovChain:
    """Load a chain from a file; kwargs go to the MarkovChain constructor."""
    chain = MarkovChain(**kwargs)
    chain.deserialize(Path(filepath).read_text(encoding='utf-8'))
    return chain
