"""Change data capture — MongoDB change streams feeding the publisher.

Learn: One watcher per tracked collection. Watchers are independent: a
broken stream on `payments` doesn't stop `stations` updates.
"""
