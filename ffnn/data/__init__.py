"""Dataset sources for ffnn."""

from .mnist import MnistCsv, build_fixture, make_input, make_pair, make_target

__all__ = ["MnistCsv", "build_fixture", "make_input", "make_pair", "make_target"]
