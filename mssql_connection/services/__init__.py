"""
Services built on top of ``DBConnection``.

``packet_export`` reads a stored packet back into the nested form that
``DBConnection.create_packet`` accepts and can write it as JSON.
"""
