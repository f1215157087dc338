from .service import merge, merge_into_thread, merge_threads

__all__ = ["merge", "merge_into_thread", "merge_threads"]
