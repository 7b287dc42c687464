from .sample_data import BookingRequest, SampleDataGenerator

__all__ = ["BookingRequest", "SampleDataGenerator"]
