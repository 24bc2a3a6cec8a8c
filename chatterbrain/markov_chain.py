#!/usr/bin/env python3
"""
Word-Level Markov Chain
=======================
Learns word adjacency from free text and generates new lines by walking
the learned graph outwards from a seed word.

Structures:
- Lexicon: per-word frequency and the n-grams the word appears in
- N-gram store: every observed window of ``chain_length`` words, flagged
  when it opened or closed a sentence
- Adjacency index: the distinct words seen right before / right after
  each n-gram

Generation:
-----------
A reply starts from a random n-gram containing the seed word (the pivot).
It grows forwards, one successor at a time, until it reaches an n-gram that
ended a sentence, then grows backwards from the pivot until it reaches one
that started a sentence. Each direction is bounded by ``max_walk_steps`` so
cyclic graphs always terminate.

Usage:
    chain = MarkovChain(chain_length=3)
    chain.learn("the gorillas are animals\\nthe gorillas are people")
    seed = chain.get_seed_from_text("tell me about animals")
    print(chain.get_reply(seed, fallback="..."))
"""

import json
import logging
import math
import random
import unicodedata
from dataclasses import dataclass, field, replace
from typing import Optional

logger = logging.getLogger(__name__)

# Separates tokens inside an n-gram key; never produced by whitespace splitting
HASH_JOINER = '│'
MAX_WALK_STEPS = 128
SEED_STRATEGIES = ('uniform', 'surprise')
FORMAT_VERSION = 1


class BrainFormatError(ValueError):
    """Serialized chain state is structurally invalid."""


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class NGram:
    """A fixed-length token window. Never mutated once stored."""
    tokens: tuple
    can_start: bool = False
    can_end: bool = False
    frequency: int = 1

    @property
    def hash(self) -> str:
        return HASH_JOINER.join(self.tokens)

    def to_dict(self) -> dict:
        return {
            'tokens': list(self.tokens),
            'can_start': self.can_start,
            'can_end': self.can_end,
            'frequency': self.frequency,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'NGram':
        tokens = data['tokens']
        if not isinstance(tokens, list) or not all(isinstance(t, str) for t in tokens):
            raise BrainFormatError(f"n-gram tokens must be a list of strings: {tokens!r}")
        return cls(
            tokens=tuple(tokens),
            can_start=_as_bool(data['can_start'], 'can_start'),
            can_end=_as_bool(data['can_end'], 'can_end'),
            frequency=_as_count(data['frequency'], 'frequency'),
        )


@dataclass
class Token:
    """Lexicon entry: how often a word was seen and which n-grams hold it."""
    frequency: int = 0
    ngrams: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'frequency': self.frequency, 'ngrams': list(self.ngrams)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Token':
        hashes = data['ngrams']
        if not isinstance(hashes, list) or not all(isinstance(h, str) for h in hashes):
            raise BrainFormatError(f"token n-grams must be a list of strings: {hashes!r}")
        return cls(frequency=_as_count(data['frequency'], 'frequency'), ngrams=list(hashes))


def _as_bool(value, name: str) -> bool:
    if not isinstance(value, bool):
        raise BrainFormatError(f"{name} must be a boolean, got {value!r}")
    return value


def _as_count(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise BrainFormatError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _as_mapping(value, name: str) -> dict:
    if not isinstance(value, dict):
        raise BrainFormatError(f"{name} must be an object, got {type(value).__name__}")
    return value


# =============================================================================
# MARKOV CHAIN
# =============================================================================

class MarkovChain:
    """Word-level Markov chain with bidirectional generation."""

    def __init__(self,
                 chain_length: int = 3,
                 seed_strategy: str = 'surprise',
                 max_walk_steps: int = MAX_WALK_STEPS,
                 lowercase: bool = True,
                 rng: random.Random = None):
        """
        Create an empty chain.

        Args:
            chain_length: Words per n-gram (fixed for the chain's lifetime)
            seed_strategy: 'uniform' picks any input word, 'surprise' picks
                the least frequent one
            max_walk_steps: Step bound for each walk direction
            lowercase: Case-normalize every token
            rng: Random source (defaults to a fresh ``random.Random``)
        """
        if isinstance(chain_length, bool) or not isinstance(chain_length, int) or chain_length < 1:
            raise ValueError(f"chain_length must be a positive integer, got {chain_length!r}")
        if seed_strategy not in SEED_STRATEGIES:
            raise ValueError(
                f"Unknown seed_strategy '{seed_strategy}'. "
                f"Available: {', '.join(SEED_STRATEGIES)}"
            )
        if max_walk_steps < 0:
            raise ValueError("max_walk_steps must be >= 0")

        self.chain_length = chain_length
        self.seed_strategy = seed_strategy
        self.max_walk_steps = max_walk_steps
        self.lowercase = lowercase
        self.rng = rng if rng is not None else random.Random()

        self.lexicon: dict[str, Token] = {}
        self.ngrams: dict[str, NGram] = {}
        self.successors: dict[str, list[str]] = {}
        self.predecessors: dict[str, list[str]] = {}

    @classmethod
    def from_settings(cls, **overrides) -> 'MarkovChain':
        """Build a chain from the ``engine`` section of app.yaml."""
        from chatterbrain.settings import get_setting

        cfg = get_setting("engine", {}) or {}
        kwargs = {
            'chain_length': cfg.get('chain_length'),
            'seed_strategy': cfg.get('seed_strategy'),
            'max_walk_steps': cfg.get('max_walk_steps'),
            'lowercase': cfg.get('lowercase'),
        }
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        if 'rng' in overrides:
            kwargs['rng'] = overrides['rng']

        missing = [name for name, value in kwargs.items() if value is None and name != 'rng']
        if missing:
            raise ValueError(f"engine settings missing in app.yaml: {', '.join(missing)}")
        return cls(**kwargs)

    # -------------------------------------------------------------------------
    # Tokenizing
    # -------------------------------------------------------------------------

    def normalize(self, text: str) -> str:
        text = unicodedata.normalize('NFC', text)
        return text.lower() if self.lowercase else text

    def split_sentences(self, text: str) -> list[str]:
        """Split a text block into sentences, one per line."""
        if not isinstance(text, str) or not text:
            return []
        return self.normalize(text).strip().split('\n')

    def tokenize(self, text: str = "") -> list[str]:
        """Split text on runs of whitespace."""
        if not isinstance(text, str) or not text:
            return []
        return self.normalize(text).split()

    # -------------------------------------------------------------------------
    # Learning
    # -------------------------------------------------------------------------

    def add_ngram(self, ngram: NGram) -> NGram:
        """
        Insert an n-gram or count another sighting of it.

        Stored records are replaced, never mutated, so an NGram held by a
        caller keeps the values it had. Edge flags only ever turn on.

        Returns:
            The record now stored under the n-gram's hash
        """
        key = ngram.hash
        stored = self.ngrams.get(key)
        if stored is None:
            stored = replace(ngram, frequency=1)
        else:
            stored = replace(
                stored,
                frequency=stored.frequency + 1,
                can_start=stored.can_start or ngram.can_start,
                can_end=stored.can_end or ngram.can_end,
            )
        self.ngrams[key] = stored
        return stored

    def learn(self, text: str = "") -> list[str]:
        """
        Learn every sentence in a block of text.

        Sentences shorter than ``chain_length`` are skipped.

        Returns:
            Successor words newly linked to an n-gram by this call
        """
        if not isinstance(text, str) or not text:
            return []

        results = []
        learned = 0
        for sentence in self.split_sentences(text):
            tokens = self.tokenize(sentence)
            if len(tokens) < self.chain_length:
                continue

            last = len(tokens) - self.chain_length
            for i in range(last + 1):
                ngram = self.add_ngram(NGram(
                    tokens=tuple(tokens[i:i + self.chain_length]),
                    can_start=(i == 0),
                    can_end=(i == last),
                ))
                key = ngram.hash

                for token in ngram.tokens:
                    entry = self.lexicon.get(token)
                    if entry is None:
                        self.lexicon[token] = Token(frequency=1, ngrams=[key])
                    else:
                        entry.frequency += 1
                        entry.ngrams.append(key)

                if i > 0:
                    previous = tokens[i - 1]
                    neighbors = self.predecessors.setdefault(key, [])
                    if previous not in neighbors:
                        neighbors.append(previous)

                if i < last:
                    following = tokens[i + self.chain_length]
                    neighbors = self.successors.setdefault(key, [])
                    if following not in neighbors:
                        neighbors.append(following)
                        results.append(following)
            learned += 1

        logger.debug(f"Learned {learned} sentence(s), {len(results)} new successor link(s)")
        return results

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def word_frequency(self, word: str) -> int:
        entry = self.lexicon.get(word)
        return entry.frequency if entry else 0

    @staticmethod
    def surprise(weights: dict, word: str) -> float:
        """
        Information content of ``word`` in bits: -log2(weight / total).

        Zero-weight words in a non-empty distribution are infinitely
        surprising. Returns 0.0 when there is nothing to measure.
        """
        if not word or not weights or word not in weights:
            return 0.0
        total = sum(weights.values())
        if total <= 0:
            return 0.0
        weight = weights[word]
        if weight <= 0:
            return math.inf
        return -math.log2(weight / total)

    def stats(self) -> dict:
        return {
            'chain_length': self.chain_length,
            'words': len(self.lexicon),
            'ngrams': len(self.ngrams),
            'start_ngrams': sum(1 for n in self.ngrams.values() if n.can_start),
            'end_ngrams': sum(1 for n in self.ngrams.values() if n.can_end),
            'successor_links': sum(len(v) for v in self.successors.values()),
            'predecessor_links': sum(len(v) for v in self.predecessors.values()),
        }

    # -------------------------------------------------------------------------
    # Seed selection
    # -------------------------------------------------------------------------

    def _choose(self, items) -> Optional[str]:
        items = list(items)
        if not items:
            return None
        return items[self.rng.randrange(len(items))]

    def get_seed_from_text(self, text: str = "") -> Optional[str]:
        """
        Pick a seed word from ``text``.

        Without usable text a random lexicon word is returned (None when
        the lexicon is empty).
        """
        tokens = self.tokenize(text)
        if not tokens:
            return self._choose(self.lexicon)

        if self.seed_strategy == 'uniform':
            return self._choose(tokens)

        weights = {token: self.word_frequency(token) for token in tokens}
        if sum(weights.values()) <= 0:
            return self._choose(tokens)

        scores = {token: self.surprise(weights, token) for token in weights}
        best = max(scores.values())
        return self._choose(token for token, score in scores.items() if score == best)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _walk(self, start: NGram, forwards: bool) -> list[str]:
        """Extend outwards from ``start``; returns the new words in walk order."""
        words = []
        current = start
        index = self.successors if forwards else self.predecessors
        steps = 0

        while not (current.can_end if forwards else current.can_start):
            if steps >= self.max_walk_steps:
                logger.debug(f"Walk hit the {self.max_walk_steps}-step bound")
                break
            steps += 1

            word = self._choose(index.get(current.hash, ()))
            if word is None or word not in self.lexicon:
                break

            if forwards:
                tokens = current.tokens[1:] + (word,)
            else:
                tokens = (word,) + current.tokens[:-1]
            current = self.add_ngram(NGram(tokens=tokens))
            words.append(word)

        return words

    def get_reply(self, seed: str = "", fallback: str = "") -> str:
        """
        Generate one line around ``seed``.

        Args:
            seed: Word to build the reply around (random when empty)
            fallback: Returned verbatim when no reply can be built

        Returns:
            Space-joined, newline-terminated line, or ``fallback``
        """
        if not isinstance(seed, str) or not seed:
            seed = self.get_seed_from_text()
            if seed is None:
                logger.debug("No seed available, returning fallback")
                return fallback
        else:
            seed = self.normalize(seed)

        entry = self.lexicon.get(seed)
        if entry is None:
            # Unknown words register with no n-grams; this one time they
            # may start from anywhere in the store.
            self.lexicon[seed] = Token()
            candidates = list(self.ngrams)
        else:
            candidates = entry.ngrams

        pivot_hash = self._choose(candidates)
        if pivot_hash is None:
            logger.debug(f"No n-grams for seed '{seed}', returning fallback")
            return fallback

        pivot = self.ngrams.get(pivot_hash)
        if pivot is None:
            logger.debug(f"Pivot n-gram '{pivot_hash}' missing, returning fallback")
            return fallback

        tail = self._walk(pivot, forwards=True)
        head = self._walk(self.ngrams[pivot_hash], forwards=False)

        reply = list(reversed(head)) + list(pivot.tokens) + tail
        logger.debug(f"Reply for '{seed}': {len(head)} back, {len(tail)} forward")
        return ' '.join(reply) + '\n'

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def dedupe_memberships(self) -> None:
        """Drop repeated n-gram hashes from lexicon entries, keeping order."""
        for entry in self.lexicon.values():
            entry.ngrams = list(dict.fromkeys(entry.ngrams))

    def to_dict(self) -> dict:
        self.dedupe_memberships()
        return {
            'version': FORMAT_VERSION,
            'chain_length': self.chain_length,
            'lexicon': {word: entry.to_dict() for word, entry in self.lexicon.items()},
            'ngrams': {key: ngram.to_dict() for key, ngram in self.ngrams.items()},
            'successors': {key: list(words) for key, words in self.successors.items()},
            'predecessors': {key: list(words) for key, words in self.predecessors.items()},
        }

    def serialize(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def load_dict(self, data: dict) -> None:
        """
        Replace all chain state with ``data``.

        Raises:
            BrainFormatError: If ``data`` is not a valid serialized chain.
                The current state is kept in that case.
        """
        data = _as_mapping(data, 'brain')
        try:
            chain_length = data['chain_length']
            if isinstance(chain_length, bool) or not isinstance(chain_length, int) or chain_length < 1:
                raise BrainFormatError(f"chain_length must be a positive integer, got {chain_length!r}")

            lexicon = {
                word: Token.from_dict(_as_mapping(entry, f"lexicon[{word!r}]"))
                for word, entry in _as_mapping(data['lexicon'], 'lexicon').items()
            }

            ngrams = {}
            for key, raw in _as_mapping(data['ngrams'], 'ngrams').items():
                ngram = NGram.from_dict(_as_mapping(raw, f"ngrams[{key!r}]"))
                if len(ngram.tokens) != chain_length:
                    raise BrainFormatError(
                        f"n-gram '{key}' has {len(ngram.tokens)} tokens, expected {chain_length}"
                    )
                if ngram.hash != key:
                    raise BrainFormatError(f"n-gram key '{key}' does not match its tokens")
                ngrams[key] = ngram

            adjacency = []
            for name in ('successors', 'predecessors'):
                index = {}
                for key, words in _as_mapping(data[name], name).items():
                    if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
                        raise BrainFormatError(f"{name}[{key!r}] must be a list of strings")
                    index[key] = list(dict.fromkeys(words))
                adjacency.append(index)
        except KeyError as e:
            raise BrainFormatError(f"missing key in brain data: {e}") from e

        self.chain_length = chain_length
        self.lexicon = lexicon
        self.ngrams = ngrams
        self.successors, self.predecessors = adjacency

    def deserialize(self, blob: str) -> None:
        """Replace all chain state with a ``serialize()`` blob."""
        try:
            data = json.loads(blob)
        except (TypeError, ValueError) as e:
            raise BrainFormatError(f"brain data is not valid JSON: {e}") from e
        self.load_dict(data)
        logger.debug(f"Loaded chain: {len(self.lexicon)} words, {len(self.ngrams)} n-grams")
