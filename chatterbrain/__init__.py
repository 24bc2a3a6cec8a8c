#!/usr/bin/env python3
"""
chatterbrain - Markov Chain Text Generator
==========================================

Learns which words follow which in a corpus and generates new lines by
randomly walking that graph from a seed word.

Quick Start
-----------
    from chatterbrain import MarkovChain

    chain = MarkovChain(chain_length=3)
    chain.learn("the gorillas are animals\\nthe gorillas are people")
    print(chain.get_reply("gorillas"))

Modules
-------
    chatterbrain.markov_chain - The chain: learning, seeding, generation
    chatterbrain.brain        - Brain files and corpus training
    chatterbrain.settings     - app.yaml settings

CLI Usage
---------
    python -m chatterbrain train corpus.txt
    python -m chatterbrain reply --seed gorillas -n 3
    python -m chatterbrain chat
"""

__version__ = "0.1.0"
__author__ = "chatterbrain"

from .markov_chain import (
    MarkovChain,
    NGram,
    Token,
    BrainFormatError,
    HASH_JOINER,
    MAX_WALK_STEPS,
    SEED_STRATEGIES,
)
from .brain import (
    BrainConfig,
    BrainStore,
    save_chain,
    load_chain,
)
from .settings import (
    get_setting,
    resolve_path,
)

__all__ = [
    'MarkovChain',
    'NGram',
    'Token',
    'BrainFormatError',
    'HASH_JOINER',
    'MAX_WALK_STEPS',
    'SEED_STRATEGIES',
    'BrainConfig',
    'BrainStore',
    'save_chain',
    'load_chain',
    'get_setting',
    'resolve_path',
]
