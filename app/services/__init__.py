"""
Service Organization
====================
Services are organized by their lifecycle and instantiation pattern:

**application/**
  Singleton services managed by ServiceContainer. One instance per application.
  Examples: CommandDispatcher, AdmissionGate, ControlHistoryService

**gateway/**
  Clients for the IoT platform the greenhouse controllers are registered with.

**hardware/**
  Background workers watching the devices.
  Examples: DeviceStatusMonitor
"""
