"""
State shared by the `api` entry points.

The scan engine itself keeps no globals; this module only remembers which
scan the host application started last, so that a new request can supersede
it instead of interleaving with it.

"""
import threading


# Should be held whenever accessing the variables below.
global_state_lock = threading.Lock()

# Cancel event of the scan currently running through api.scan, or None
active_scan_cancel_event = None

# ScanSummary of the last scan that returned through api.scan
last_scan_summary = None
