"""Reader for the HDF5 subset used by AES69 SOFA files."""

__version__ = "1.3.0"