"""Hub plugins shipped with the Gotify MQTT Forwarder."""
