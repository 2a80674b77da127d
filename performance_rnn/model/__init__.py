"""
Model architecture for Performance RNN.
"""

from .lstm import (
    BasicLSTMCell,
    PerformanceRNN,
    create_model
)

__all__ = [
    'BasicLSTMCell',
    'PerformanceRNN',
    'create_model'
]
