"""Trading signal synthesis."""
from .generator import SignalRow, generate_signals, iter_signal_rows, signal_names
