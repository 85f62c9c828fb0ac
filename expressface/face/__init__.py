"""Face pipeline building blocks (detector/descriptor/expression/matcher/gallery).

Everything here except the detector backend is pure computation, so the
detection loop can call it synchronously once per frame.
"""
