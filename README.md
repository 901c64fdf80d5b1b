# nodefeatures

`nodefeatures` inspects a Linux host and reports what it finds as a flat
mapping of feature names to values, ready to be turned into node labels.

Each kind of feature comes from its own *feature source*:

| Source          | Module                  | What it looks at                                                   |
|-----------------|-------------------------|--------------------------------------------------------------------|
| `CpuSource`     | `nodefeatures.cpu`      | CPU flags, hyper-threading, P-state and C-state settings           |
| `KernelSource`  | `nodefeatures.kernel`   | kernel version, selected kconfig options, SELinux status           |
| `MemorySource`  | `nodefeatures.memory`   | NUMA topology and NVDIMM devices                                   |
| `NetworkSource` | `nodefeatures.network`  | SR-IOV capable and configured network interfaces                   |
| `PciSource`     | `nodefeatures.pci`      | PCI devices of whitelisted classes                                 |
| `UsbSource`     | `nodefeatures.usb`      | USB devices of whitelisted classes                                 |
| `StorageSource` | `nodefeatures.storage`  | non-rotational block devices                                       |
| `IommuSource`   | `nodefeatures.iommu`    | presence of IOMMU devices                                          |
| `SystemSource`  | `nodefeatures.system`   | `ID` and `VERSION_ID` from `os-release`                            |
| `LocalSource`   | `nodefeatures.local`    | features written by hook programs or listed in feature files       |
| `CustomSource`  | `nodefeatures.custom`   | user-defined features built from match rules                       |
| `FakeSource`    | `nodefeatures.fake`     | a fixed set of labels, useful for testing a pipeline               |

Every source is a `FeatureSource` (from `nodefeatures.base`). It has a
`discover()` method that returns the features it found, a `config`
attribute holding its effective configuration, and `new_config()`, which
returns its default configuration (`None` for sources that take none).
Assigning a configuration of the wrong type raises `TypeError`.

## Using a source

```python
from nodefeatures.fake import FakeConfig, FakeSource

source = FakeSource()
print(source.discover())
# {'fakefeature1': 'true', 'fakefeature2': 'true', 'fakefeature3': 'true'}

print(FakeSource(FakeConfig(labels={"demo": "yes"})).discover())
# {'demo': 'yes'}
```

Real sources read the host's `/sys`, `/etc`, `/boot` and `/proc`:

```python
from nodefeatures.kernel import KernelSource
from nodefeatures.system import SystemSource

for source in (KernelSource(), SystemSource()):
    for name, value in sorted(source.discover().items()):
        print(f"{name}={value}")
```

A source that cannot inspect the host at all raises `DiscoveryError`
(from `nodefeatures.base`); partial failures, such as one unreadable file,
are logged through the standard `logging` module and the rest of the
features are still returned.

## Configuration

The configurable sources take dataclasses:

- `CpuConfig` with a `CpuidConfig` holding `attribute_blacklist` and
  `attribute_whitelist`; a non-empty whitelist takes precedence.
- `KernelConfig` with `kconfig_file` (tried before the well-known kernel
  config locations) and `config_opts` (the options to report).
- `PciConfig` and `UsbConfig` with `device_class_whitelist` (class
  prefixes) and `device_label_fields` (which attributes form the label).
- `CustomSource` takes a list of `FeatureSpec`.

`LocalSource` accepts `hook_dir` and `features_dir`, `CustomSource` accepts
`directory`, and `UsbSource` accepts `devices_dir`, to read from somewhere
other than the default locations.

## Inspecting another root

The host directories are `HostDir` objects in `nodefeatures.hostdirs`:
`BOOT_DIR`, `ETC_DIR` and `SYSFS_DIR`. `HostDir.path(...)` joins path
elements below the directory. The directories are built from the
`NODEFEATURES_PATH_PREFIX` environment variable, read when the module is
imported (default `/`); with `NODEFEATURES_PATH_PREFIX=/host-` the sources
read `/host-sys`, `/host-etc` and `/host-boot`.

## Custom features

`CustomSource` evaluates a list of `FeatureSpec` entries. A feature is
present when every rule in at least one of its `matchOn` entries matches;
its value is `value` if given, otherwise `True`. The rules live in
`nodefeatures.rules`: `PciIDRule`, `UsbIDRule`, `LoadedKModRule`,
`CpuIDRule`, `KconfigRule` and `NodenameRule`.

Specs are written in YAML:

```yaml
- name: my.accelerator
  value: present
  matchOn:
    - pciId:
        vendor: ["15b3"]
    - loadedKMod: ["ib_uverbs", "rdma_ucm"]
- name: special.node
  matchOn:
    - nodename: ["worker-0[1-3]"]
```

Such text is parsed with `parse_feature_specs` from `nodefeatures.custom`;
unknown fields raise `ValueError`. Besides the configured specs,
`CustomSource` always checks two built-in features, `rdma.capable` and
`rdma.available`, and reads further spec files from its `custom.d`
directory and that directory's direct subdirectories, skipping hidden
files and files that cannot be parsed. `NodenameRule` matches against the
`NODE_NAME` environment variable.

## Local features

`LocalSource` runs every regular file in the hook directory and reads every
regular file in the features directory. Each non-empty line is either
`name` (meaning `"true"`) or `name=value`. Names without a `/` are prefixed
with the hook or file name and a dash; a leading `/` is dropped. Features
from hooks win over features from files. A hook that exits with a non-zero
status contributes nothing; its stderr is logged.

## What it does not do

- There is no command-line program; the package is used as a library.
- It only discovers features; it does not publish them as labels to a
  cluster or anywhere else.
- CPU flags come from the kernel's hardware capability words on ARM,
  ARM64, ppc64le and s390x. On x86 no `cpuid.*` flags are reported, and
  SST-BF and RDT detection always report nothing.