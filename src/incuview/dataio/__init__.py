"""Data input/output helpers (incubator CSV logs, exports and file names).

Utility modules here keep disk-level concerns isolated from the pipeline:
- :mod:`record_adapter` parses both CSV row layouts into samples.
- :mod:`log_store` lists, reads, prunes and appends daily log files.
- :mod:`csv_logger` buffers live samples into the current day's file.
- :mod:`csv_writer` emits per-session export files.
- :mod:`file_paths` centralises the daily log naming scheme.
"""
