from ad_lookup.cli import main

raise SystemExit(main())
