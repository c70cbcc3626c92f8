"""
mqtt-console — interactive MQTT client built on the Mosquitto command-line tools.

Keeps live topic subscriptions (one mosquitto_sub process each), publishes via
mosquitto_pub, and routes incoming messages into per-topic and console surfaces.
"""
