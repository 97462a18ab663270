"""
Virtual modem and GPS sources.
"""

import threading

from netlogger.services.capture.models import RadioTech
from netlogger.services.capture.samplers import classify, format_position
from netlogger.simulator import VirtualGps, VirtualModem


def test_virtual_modem_reports_classify():
    modem = VirtualModem(tech=RadioTech.NR, pci=77, seed=1)
    snapshot = classify(modem.current_report(), modem.bandwidth())

    assert snapshot.network_type == "5G NR"
    assert snapshot.pci == "77"
    assert snapshot.carrier_name == "Virtual Telecom"
    assert snapshot.downlink_speed.endswith(" Mbps")


def test_virtual_modem_pushes_until_cancelled():
    modem = VirtualModem(period_s=0.01, seed=2)
    received = threading.Event()
    reports = []

    def callback(report):
        reports.append(report)
        received.set()

    subscription = modem.subscribe(callback)
    assert received.wait(2.0)
    subscription.cancel()

    count = len(reports)
    assert count >= 1
    assert reports[0].subscription.carrier_name == "Virtual Telecom"


def test_virtual_gps_moves_along_bearing():
    gps = VirtualGps(latitude=10.0, longitude=20.0, speed_mps=10.0, bearing_deg=45.0)
    fix = gps.advance(60)

    assert fix.latitude > 10.0
    assert fix.longitude > 20.0
    assert format_position(fix).velocity == "36.00 km/h"


def test_virtual_gps_subscription():
    gps = VirtualGps()
    received = threading.Event()

    subscription = gps.subscribe(10, lambda fix: received.set())
    assert received.wait(2.0)
    subscription.cancel()
