from interview_hub.media.negotiator import DeviceNegotiator, MediaPlatform, NegotiatorMessage

__all__ = ["DeviceNegotiator", "MediaPlatform", "NegotiatorMessage"]
