# minimqtt

A compact MQTT 3.1.1 client that speaks the protocol over any byte
transport you hand it, together with two helpers for simple analysis of
downscaled (1/8) foreground masks: regions of interest and a
line-crossing counter.

The package has no runtime dependencies.

## Installing

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## MQTT packets

`minimqtt.packets` builds raw MQTT control packets as `bytes`:

```python
from minimqtt.packets import encode_remaining_length, publish_packet, subscribe_packet

encode_remaining_length(321)            # b"\xc1\x02"
publish_packet("topic", b"payload", False)
# b"\x30\x0e\x00\x05topic" + b"payload"
subscribe_packet(1, "sensors/#", 0)
```

Also available: `encode_string`, `build_packet`, `connect_packet`,
`unsubscribe_packet` and `puback_packet`. Out-of-range values (message
ids, QoS, lengths) raise `ValueError`.

`PacketType` names the control packet types and `ConnectionState` the
states a client can be in (connected, disconnected, timed out, refused
for bad credentials, and so on).

## The client

`minimqtt.client.PubSubClient` drives a session over a `Transport`, an
abstract class with `connect`, `connected`, `available`, `read`, `write`,
`flush` and `stop`. Implement it for your connection, then give the
client a server and a callback that receives the topic (`str`) and
payload (`bytes`) of each incoming message:

```python
from minimqtt.client import MQTTError, PubSubClient

def on_message(topic, payload):
    print(topic, payload)

client = PubSubClient(transport, host="broker.example.com", port=1883, callback=on_message)
password = "password"
try:
    client.connect("sensor-1", user="user", password=password)
except MQTTError as error:
    print("refused:", client.state)
client.subscribe("sensors/#", 0)
client.publish("sensors/status", b"online", True)

while client.connected():
    client.loop()
```

`loop()` sends keep-alive pings, answers broker pings, acknowledges QoS 1
messages and dispatches incoming publishes to the callback. Messages
larger than the buffer (500 bytes by default) are dropped unless a
`stream` was given, in which case their payload is written to it;
`set_buffer_size()` changes the limit. Large payloads can be sent piece
by piece with `begin_publish()`, `write()` and `end_publish()`.
Publishing is QoS 0 only; subscriptions may be QoS 0 or 1. Failures
raise `MQTTError`, whose `state` attribute holds the connection state.

## Regions of interest

`minimqtt.roi` has `Rect` and `Circle` regions. Coordinates in pixels
are scaled down by 8; values below 1 are taken as a fraction of the mask.
You count the cells yourself and the region tells you whether its
threshold was reached:

```python
from minimqtt.roi import Rect

region = Rect(0, 0, 0.5, 1, 0.2)      # left half, triggers at 20% of its area
region.set_boundaries(40, 30)          # mask of 40x30 cells
x1, y1, x2, y2 = region.bounding_box()
region.forget()
for y in range(y1, y2):
    for x in range(x1, x2):
        if region.includes(x, y):
            region.increment_area()
            if mask[y][x]:
                region.increment_foreground()
if region.triggered():
    print(region.trigger_status())
```

Regions can be linked with `chain()` and iterated over; `draw_to_canvas()`
returns JavaScript that draws the region on a canvas context named `ctx`.

## Line crossing

`minimqtt.linecrossing.LineCrossingCounter` watches bands on either side
of a vertical line in a foreground mask and counts objects crossing
left-to-right and right-to-left. The mask is any object with `width` and
`height` attributes and an `is_foreground(x, y)` method:

```python
from minimqtt.linecrossing import LineCrossingCounter

counter = LineCrossingCounter(mask)
counter.line_at(0.5)
counter.set("lag", 3)

for _ in frames:
    # refresh mask here
    counter.update()
    if counter.crossed_left_to_right():
        print(counter.to_json())

print(counter.left_to_right_count, counter.right_to_left_count)
```

`update()` raises `ValueError` when the line or the above/below limits
make no sense for the mask.

## What is not included

- No network transport: the client needs a `Transport` implementation
  supplied by you.
- No camera capture, frame-size table, background model or motion
  detector: the region and line-crossing helpers work on a foreground
  mask that you produce and count yourself.
- No command-line program.