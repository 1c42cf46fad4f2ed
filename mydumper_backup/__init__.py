"""Scheduled MySQL backups with mydumper: hooks, retention, a "latest" link and a status file for monitoring."""
