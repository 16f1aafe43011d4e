from .run_record import RUN_RECORD_FILE, RunRecord, load_run_record, save_run_record

__all__ = ["RUN_RECORD_FILE", "RunRecord", "load_run_record", "save_run_record"]
