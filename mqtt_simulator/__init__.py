"""MQTT telemetry simulator.

Reads a JSON dataset of named values with explicit binary encodings, reloads it
whenever the file changes, and periodically publishes one MQTT message per
entry:
- `config` parses the dataset into typed values
- `serializer` turns each value into its exact wire bytes
- `watcher` + `publisher` keep the broker fed with the current dataset

See `python -m mqtt_simulator --help` for how to run.
"""
