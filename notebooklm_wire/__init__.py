"""NotebookLM wire client.

Decoding and authentication layer for NotebookLM's undocumented
batchexecute protocol: streaming frame reassembly, chat event decoding,
positional entity resolution, authenticated media redirects and
client-side quota enforcement.
"""

__version__ = "0.1.0"
