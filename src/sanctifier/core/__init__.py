"""Analysis core: detectors, prover, gas estimation, vulnerability database."""
