"""
Core engine for ripping an ICY stream.

The `DemuxController` separates the interleaved byte stream into headers,
audio and metadata; `RipSession` wires its callbacks to the track writer and
drives the read loop.
"""
