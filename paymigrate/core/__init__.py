# Subpackages are imported explicitly by callers, e.g.
# `from paymigrate.core.detection import Detector`.
