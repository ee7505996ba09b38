"""Keep the sched_ext scheduler mode in sync with the active power profile."""
