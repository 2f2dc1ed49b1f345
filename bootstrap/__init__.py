"""Entry points: the ``lambda-bootstrap`` runtime command and the local Runtime API emulator."""
