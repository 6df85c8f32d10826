"""Change events — canonical tags, the envelope union, and the normalizer.

Learn: Everything in this package is pure. The capture watchers feed raw
change documents in; the publisher and gateway only ever see envelopes.
"""

from evcharge.events.envelope import ChangeEnvelope, build_envelope, parse_envelope
from evcharge.events.normalizer import normalize

__all__ = ["ChangeEnvelope", "build_envelope", "normalize", "parse_envelope"]
