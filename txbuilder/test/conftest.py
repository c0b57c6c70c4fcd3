import socket

# Nothing in txbuilder talks to the network, fail loudly if a test tries
# https://www.tonylykke.com/posts/2018/07/31/disabling-the-internet-for-pytest/


def guard(*args, **kwargs):
    raise Exception("Unit test tried to open a socket, txbuilder is offline only")


socket.socket = guard
