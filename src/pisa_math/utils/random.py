import numpy as np

_MAX_SEED = 2**31 - 1


def make_rng(seed: int | None) -> np.random.Generator:
    """Create the generator handle that is threaded through the pipeline."""
    return np.random.default_rng(seed)


def derive_seed(rng: np.random.Generator) -> int:
    """Draw an integer seed for libraries that take ``random_state``."""
    return int(rng.integers(0, _MAX_SEED))
