"""
Upload relay: client file in, Streamtape file out.

Sources materialise the client's bytes, the negotiator obtains an upload
URL, the relay streams the bytes there and the normalizer shapes the
result. The pipeline runs the steps in order and the reaper removes any
temporary file afterwards.
"""

from streamtape_relay.services.upload.pipeline import UploadPipeline, UploadState

__all__ = ["UploadPipeline", "UploadState"]
