"""Registry Sync (regsync).

Keeps a DNS-style service registry in line with cluster membership:
 - every ready node is registered for every known service
 - node/service/readiness events become registry add/remove commands
 - a periodic sync drops nodes that vanished from the control plane

One thread owns all bookkeeping state; everything else talks to it via queues.
"""
