"""DANM endpoint cleaner.

Per-node garbage collector that keeps the cluster's DanmEp records in line
with the containers actually present on this host:
 - a startup sweep removes endpoints of exited or vanished containers
 - a docker event watcher removes endpoints of pod sandboxes as they die

Each removal releases the endpoint's address back to its DanmNet first.
"""
